"""Item-item collaborative filtering: co-occurrence counts -> cosine similarity matrix.

Pipeline, one run per input stream:
- Filter each user's ratings by a threshold to get the user's qualifying items
- Emit one contribution per canonical item pair (a <= b), self pairs included
- Sum all users' contributions into one upper-triangular matrix
- Mirror it into a full symmetric matrix
- Divide every cell by sqrt(diag(a) * diag(b)) (cosine), optionally row-normalize
"""

"""
Submissions module: file-backed records owned by a team.

Uploads are gated on leader approval; owners and admins bypass the gate.
"""

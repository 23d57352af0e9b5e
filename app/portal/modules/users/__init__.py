"""
Users module: accounts, role changes, team membership and leader approvals.

Rules enforced here:
- owner > admin > leader > member; only an owner grants or edits owner accounts
- one leader per team, and a leader always belongs to a team
- at most MAX_TEAM_MEMBERS approved members per team
- changing team resets approval
"""

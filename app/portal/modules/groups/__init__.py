"""
Groups (teams) module.
"""

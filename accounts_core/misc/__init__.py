"""
Accounts core miscellaneous helpers
"""

"""
Backup container codec and file helpers.
"""

"""
archtrace.utilities - Source analysis, glob matching, git and time helpers
"""

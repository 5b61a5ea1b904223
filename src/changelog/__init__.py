"""
Changelog — Record mirrored images in a git repository.
"""

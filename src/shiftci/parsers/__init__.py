"""
Raw-text analyzers for Jenkinsfiles.

- scanner: feature detection and complexity tier
- pipeline: structured directives (parameters, environment, matrix, ...)
- credentials: credential call sites
"""

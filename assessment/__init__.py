"""
Multi-cloud assessment runner core: credential broker, scanner invocation and artifact upload.
"""

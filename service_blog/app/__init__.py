"""
Blog service application package.
"""

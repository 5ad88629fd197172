"""
HTTP routers. All routes are prefixed with /api.

- products: product catalog, branch assignment and bulk assignment
- branches: active branch selection and branch settings
"""

"""
Utils package - Utility modules for CA injector functionality.

Contains helper modules for:
- Kubernetes client management and API error handling
- Policy extraction from labels and annotations
- Owner chain resolution and resource naming
- Hot-reloading TLS credentials
"""

"""
Models package - Pydantic models for type-safe request handling.

Defines data models for:
- AdmissionReview requests and responses
- Workload injection policy and OS family layouts
- Provisioning requests handed to the background workers
"""

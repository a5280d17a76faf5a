"""
cain - Kubernetes admission controller injecting trusted CA material into Pods.

This webhook provides:
- Declarative CA injection driven by Pod labels and annotations
- OS family aware trust bundle regeneration via an init container
- JVM truststore provisioning through cert-manager Certificates
- Python CA bundle environment variables
"""

__version__ = "0.1.0"

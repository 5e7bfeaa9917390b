"""
Interview Prep AI Core
======================

Policy and orchestration layer that routes learning and interview-preparation
content generation to language-model backends.

This package provides:
- Tier configuration resolution with plan and BYOK precedence
- Plan/admin/capability gated tool registries
- Quota admission control for metered tools
- Bounded multi-step tool orchestration
- Streaming structured generation with cancellation
- Cost and audit logging for every generation
"""

__version__ = "1.0.0"

"""
Services layer - Business logic goes here.

DESIGN PRINCIPLE:
- Services contain business logic, NOT routes
- Role checks go through permissions.can_perform
- Storage and blob access go through the provider registries
"""

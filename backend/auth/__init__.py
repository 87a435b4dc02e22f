"""
Authorization core for Graphēon graphs.

Provides:
- AuthManager: identity, group, target, membership, grant and project lifecycle
- Role-permission resolution (user -> groups -> grants -> target resources)
- TTL lookup caches with coarse invalidation
- All-or-nothing transactions for multi-record project operations
- bcrypt credential verification
"""

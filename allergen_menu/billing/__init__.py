"""
Billing package.

Responsibilities:
- Manage Stripe configuration and the static price -> plan mapping.
- Create checkout and customer-portal sessions for restaurant owners.
- Verify and reconcile Stripe webhook deliveries into restaurant billing state.
- Resolve a restaurant's plan and the quotas it grants.
"""

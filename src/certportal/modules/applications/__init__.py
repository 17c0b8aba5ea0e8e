"""
Applications module - Certificate applications from submission to issuance.

Workflow:
1. Citizen submits an application (PENDING)
2. Referenced documents are auto-verified (DOCUMENT_VERIFICATION)
3. Application waits for an official (OFFICIAL_APPROVAL)
4. Official approves and a certificate is issued (COMPLETED), or rejects (REJECTED)
"""

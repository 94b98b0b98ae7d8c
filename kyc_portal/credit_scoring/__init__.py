# credit_scoring module

# Credit-risk scoring for KYC applicants: the report normalizer, the five
# sub-factor scores, aggregation onto the 300-850 scale, rule-based fraud
# reasons, and persistence of scores and admin bureau checks.
#
# Submodules are imported explicitly by callers (e.g. `from kyc_portal.credit_scoring import engine`)
# so that the pure engine can be used without the database layer.

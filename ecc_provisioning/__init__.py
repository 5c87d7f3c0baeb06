"""ECC user provisioning client package.

To use the client:
    from ecc_provisioning.core import EccClient, CallContext

To load settings from the environment:
    from ecc_provisioning.config import load_settings

To run the local stub of the remote service:
    from ecc_provisioning.stub_app import create_stub_app
"""
# Note: We don't import stub_app by default to avoid Flask dependency
# for callers that only use ecc_provisioning.core

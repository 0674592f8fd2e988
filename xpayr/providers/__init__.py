"""External collaborators: chain RPC access, signing and attestation."""

# Pure URL services: canonicalization, fingerprinting, host validation.

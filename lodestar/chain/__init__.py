"""On-chain primitives: addresses, account layouts, instructions, transport."""

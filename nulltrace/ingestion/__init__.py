"""Read side: ledger access, mint resolution, record selection, balances."""

from __future__ import annotations

from expense_ledger.cli import main

if __name__ == "__main__":
    main()

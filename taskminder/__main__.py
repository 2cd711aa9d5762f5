from __future__ import annotations

from taskminder.cli import main

if __name__ == "__main__":
    main()

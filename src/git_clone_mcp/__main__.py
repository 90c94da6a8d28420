"""Git Clone MCP 入口点。

支持: python -m git_clone_mcp
"""

from .app import main

if __name__ == "__main__":
    main()

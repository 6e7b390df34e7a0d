"""
PagePilot 包入口点 - 支持 `python -m pagepilot` 调用
"""

from pagepilot.main import main

if __name__ == "__main__":
    main()

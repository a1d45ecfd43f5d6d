"""swadeployのコマンドラインエントリポイント。"""

if __name__ == "__main__":
    import sys

    from swadeploy.cli import main

    sys.exit(main())

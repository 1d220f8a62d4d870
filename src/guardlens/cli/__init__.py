def main() -> None:
    """CLI entrypoint for the guardlens console script."""
    from guardlens.cli.app import app

    app()

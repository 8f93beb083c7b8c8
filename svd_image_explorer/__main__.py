from svd_image_explorer.cli import main

if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

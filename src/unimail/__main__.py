"""Enable running unimail as a module: python -m unimail."""

from unimail.cli import main

if __name__ == "__main__":
    main()

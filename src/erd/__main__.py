from erd.cli import main

main()

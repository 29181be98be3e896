from dwellmap.cli import main

main()

from pipescript.cli.main import main

main()

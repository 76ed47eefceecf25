from airouter.cli.main import main

main()

from ctk.cli import main

main()

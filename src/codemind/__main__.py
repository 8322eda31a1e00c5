from codemind.server import main

main()

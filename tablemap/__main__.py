from tablemap.main import main

main()

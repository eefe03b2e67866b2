from artnotify.main import main

main()

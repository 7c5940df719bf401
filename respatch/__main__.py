from respatch.gui import main

main()

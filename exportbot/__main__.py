from exportbot.bot import main

main()

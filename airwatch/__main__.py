from .airwatch_agent import main

main()

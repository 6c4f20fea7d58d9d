from stackdedup.dedup_tool import main


main()

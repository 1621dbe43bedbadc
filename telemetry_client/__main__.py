from telemetry_client.main import main

main()

from imagerelay.main import run

run()

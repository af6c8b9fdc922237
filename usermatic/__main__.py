from usermatic.cli import fncMain

if __name__ == "__main__":
    fncMain()

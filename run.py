from novelnest import create_app

app = create_app()

if __name__ == '__main__':
    # Management commands live on the CLI: `flask --app run init-db`, `flask --app run clr`
    app.run(debug=True)

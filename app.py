# app.py - run the API: python app.py, or point a WSGI server at app:app
import os

from jewellers import create_app

app = create_app()

if __name__ == '__main__':
    app.run(debug=os.getenv('FLASK_DEBUG') == '1', port=int(os.getenv('PORT', 5000)))

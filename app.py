from flask import Flask, request
import os
import main

app = Flask(__name__)


# 生成済みページを返すエンドポイント
@app.route('/daily')
def daily():
    return main.daily(request)


@app.route('/')
def index():
    return "AI Daily is running. Use /daily to build today's digest."


if __name__ == "__main__":
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)))

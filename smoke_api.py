"""测试Web API的简单脚本（需先启动服务器）。"""

import json
import requests

BASE_URL = "http://127.0.0.1:3001"


def smoke_api():
    """依次调用各个接口并打印结果。"""
    print("=" * 50)
    print("测试 Cluedo 推理 Web API")
    print("=" * 50)

    print("\n1. 获取API信息...")
    response = requests.get(f"{BASE_URL}/")
    print(f"状态码: {response.status_code}")
    print(f"响应: {json.dumps(response.json(), ensure_ascii=False, indent=2)}")

    print("\n2. 创建新对局...")
    response = requests.post(
        f"{BASE_URL}/games",
        json={
            "playerNames": ["你", "阿光", "小美", "老王"],
            "observerPosition": 0,
            "observerHand": [
                {"category": "suspect", "name": "Mrs. White"},
                {"category": "weapon", "name": "Wrench"},
                {"category": "room", "name": "Hall"},
                {"category": "room", "name": "Study"},
            ],
            "handSizes": [4, 5, 5, 4],
            "name": "周五夜局",
        },
    )
    game_data = response.json()
    print(f"状态码: {response.status_code}")
    print(f"响应: {json.dumps(game_data, ensure_ascii=False, indent=2)}")
    game_id = game_data["game_id"]

    print(f"\n3. 在对局 {game_id} 中登记推理...")
    response = requests.post(
        f"{BASE_URL}/games/{game_id}/suggestions",
        json={
            "proposer": 0,
            "suspect": "Colonel Mustard",
            "weapon": "Rope",
            "room": "Library",
            "responder": 3,
            "revealed": {"category": "weapon", "name": "Rope"},
        },
    )
    print(f"状态码: {response.status_code}")
    print(f"响应: {json.dumps(response.json(), ensure_ascii=False, indent=2)}")

    print(f"\n4. 获取对局 {game_id} 的概率估计...")
    response = requests.get(f"{BASE_URL}/games/{game_id}/probabilities")
    probabilities = response.json()["probabilities"]
    print(f"状态码: {response.status_code}")
    for prob in probabilities:
        print(f"  {prob['card']['name']}: 答案概率 {prob['in_solution']:.2f}")

    print(f"\n5. 获取对局 {game_id} 的答案...")
    response = requests.get(f"{BASE_URL}/games/{game_id}/solution")
    print(f"状态码: {response.status_code}")
    print(f"答案: {json.dumps(response.json()['solution'], ensure_ascii=False)}")

    print("\n" + "=" * 50)
    print("测试完成！")
    print("=" * 50)


if __name__ == "__main__":
    try:
        smoke_api()
    except requests.exceptions.ConnectionError:
        print("错误：无法连接到服务器。请确保服务器正在运行：")
        print("  cluedo serve")

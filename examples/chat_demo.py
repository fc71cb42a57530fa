"""Minimal demonstration of the provider-routing chat API."""

from genesis_ai.api import service

if __name__ == "__main__":
    question = "Where should I start researching my family's immigration records?"
    reply = service.send_message(question)
    print("User:", question)
    print(f"Assistant ({reply['provider']}/{reply['model']}):", reply["response"])
    for conv in service.get_conversation_list():
        print(conv["conversation_id"], conv["message_count"], conv["title"])
